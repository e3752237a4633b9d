#!/usr/bin/env python3
"""
Entry point for the analysis API server
"""

import sys
import os

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), 'src'))

from dbanalyser.server import run

if __name__ == "__main__":
    run()
