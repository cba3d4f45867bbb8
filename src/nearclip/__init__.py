"""nearclip - LAN clipboard sharing between paired devices"""

__version__ = "1.0.0"
