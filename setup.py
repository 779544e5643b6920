from setuptools import setup, find_packages

# Check if PyGObject (gi) is already available system-wide
# This prevents pip from trying to build PyGObject from source when it's
# already installed via system package manager (apt, pacman, etc.)
_HAS_PYGOBJECT = False
try:
    import gi
    gi.require_version('GLib', '2.0')
    from gi.repository import GLib
    _HAS_PYGOBJECT = True
except (ImportError, ValueError, AttributeError):
    _HAS_PYGOBJECT = False

# Base requirements - always needed
install_requires = [
    "dbus-python>=1.2.0",
    "PyYAML>=6.0",
    "cryptography>=41.0",
]

extras_require = {
    "test": ["pytest>=8.0.0"],
}

# The GLib main loop drives every blocking wait (signals, notify sockets,
# timers).  Prefer the distribution package when it is already installed.
if not _HAS_PYGOBJECT:
    install_requires.append("PyGObject>=3.48.0")
    extras_require["glib"] = []
else:
    extras_require["glib"] = ["PyGObject>=3.48.0"]

setup(
    name="bandlink",
    version="0.3.0",
    description="Mi Band 4 companion: auth, time, goals, alerts and media over BlueZ",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=install_requires,
    extras_require=extras_require,
    entry_points={
        'console_scripts': [
            'bandlink=bandlink.cli:main',
        ],
    },
    python_requires='>=3.8',
)
