#!/usr/bin/env python3
"""
Main entry point for the database analysis console
"""

import sys
import os

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), 'src'))

from dbanalyser.cli.main_cli import main

if __name__ == "__main__":
    main()
