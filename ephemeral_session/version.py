"""Ephemeral Session Meta information.
   Ephemeral Session keeps client-encrypted credentials in Redis
   for the lifetime of a browser session only.
"""
__title__ = 'ephemeral_session'
__description__ = (
   'Ephemeral Session keeps client-encrypted credentials in Redis '
   'under HMAC-masked keys with a bounded TTL.'
)
__version__ = '1.0.0'
__copyright__ = 'Copyright (c) 2025 Forward Email'
__author__ = 'Forward Email'
__author_email__ = 'support@forwardemail.net'
__license__ = 'MIT'
__url__ = 'https://github.com/forwardemail/ephemeral-session'
