#!/usr/bin/env python3
"""
CLI entry point for Procurement Hub management.
Usage: python cli.py [command] [options]
"""

from app.cli.procurement import procurement

if __name__ == '__main__':
    procurement()
