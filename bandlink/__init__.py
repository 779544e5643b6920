"""
bandlink - Mi Band 4 companion over BlueZ D-Bus
"""

__version__ = "0.3.0"
