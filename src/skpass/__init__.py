"""
SKPass -- sovereign password store companion.

Find a secret by name, decrypt it, hand it over for a moment,
then take it back. Every change to the store becomes its own
commit, and the history travels by rebase, never by merge.

A smilinTux Open Source Project.
"""

import os

__version__ = "0.1.0"
__author__ = "smilinTux"

SKPASS_HOME = os.environ.get("SKPASS_HOME", "~/.skpass")
