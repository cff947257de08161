"""
Field Condition Service.
"""
