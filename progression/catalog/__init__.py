"""
Catalog Package

Read access to the course, lesson and quiz metadata owned by the
surrounding product, and the enrollment check guarding lesson access.
"""
