"""
Alipay open-platform gateway: signed requests, payment modes and notify checks.
"""
