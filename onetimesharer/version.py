"""OneTimeSharer Meta information.
   OneTimeSharer stores a secret that can be retrieved exactly once.
"""
__title__ = 'onetimesharer'
__description__ = (
   'OneTimeSharer stores encrypted secrets that can be '
   'retrieved exactly once.'
)
__version__ = '0.3.0'
__license__ = 'Apache-2.0'
