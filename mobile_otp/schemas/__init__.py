# Schemas package (re-export feature modules for stable imports)
from .auth.otp import *
from .common import *
