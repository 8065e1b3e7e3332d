#!/usr/bin/env python3
"""
vidprep - Main Entry Point
Transcode a video for web delivery, capture a thumbnail and split oversized output

Usage:
    python main.py process input.mov --name "Holiday clip.mov"
    python main.py probe input.mp4
"""

import sys

from vidprep.cli import main

if __name__ == "__main__":
    sys.exit(main())
