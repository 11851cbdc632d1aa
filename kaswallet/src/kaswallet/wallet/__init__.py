"""
Key management, address encoding, transaction building and signing.
"""
