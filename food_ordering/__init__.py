"""
                Food Ordering Service

Backend for a food-ordering application: catalog browsing, guest checkout,
order tracking and account authentication over HTTP.
"""

__version__ = "1.0.0"
