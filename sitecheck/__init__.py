"""
SiteCheck — plant compliance ledger (GA2 daily checks, GA1 certs, permits).
"""
__version__ = "0.3.0"
