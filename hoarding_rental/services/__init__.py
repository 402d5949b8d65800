"""
Business logic layer. Each service owns its transactions and returns
ServiceResult objects.
"""
