"""Message Vault Meta information.
   Message Vault protects message bodies, file payloads and session tokens
   at rest with authenticated encryption derived from a master secret.
"""
__title__ = 'message_vault'
__description__ = (
   'Message Vault protects message bodies, file payloads and '
   'session tokens at rest.'
)
__version__ = '0.1.0'
__copyright__ = 'Copyright (c) 2023 Jesus Lara'
__author__ = 'Jesus Lara'
__author_email__ = 'jesuslarag@gmail.com'
__license__ = 'Apache-2.0'
__url__ = 'https://github.com/phenobarbital/message-vault'
