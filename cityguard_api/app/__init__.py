"""
Application package.

Each domain (users, businesses, ads, blood donors, blood requests,
jobs) is split into ORM models, Pydantic schemas, a service class and a
router defined in ``api/v1/endpoints``.
"""
