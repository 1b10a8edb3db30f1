"""
**guestbook** is a small web guestbook: visitors read a paginated list of
posted messages and sign it through an HTML form. Entries live in a single
`entry` table reached through a pooled DB-API 2 driver.
"""

__version__ = '0.1.0'
__author__ = 'Keith Gaughan'
__email__ = 'k@stereochro.me'
