# -*- coding: utf-8 -*-
"""
ku_errors.py  (error kinds shared by every KU-IBE role)
-------------------------------------------------------
  InvalidInput     : malformed encodings, wrong element type, identity out of range
  IntegrityError   : Decrypt verification failed (one message for every cause)
  PrimitiveFailure : an injected HashToScalar / KeyDerivation / Extractor broke
"""


class KuError(Exception):
    """Base class for all KU-IBE errors."""


class InvalidInput(KuError, ValueError):
    pass


class IntegrityError(KuError):
    pass


class PrimitiveFailure(KuError, RuntimeError):
    pass
