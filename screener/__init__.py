"""
screener — bulk SMS spam / scam screening.
Upload a CSV or XLSX of (sender, text) rows, get a pass / not pass verdict,
a category and a note per row, export the result set.
"""

__version__ = '1.0.0'
