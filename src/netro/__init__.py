"""
Netro - networking and troubleshooting utilities

A command-line toolkit for developers and administrators, starting with a
netcat-style TCP/UDP connection probe and listener.

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""

__version__ = "0.0.1"
__author__ = "DNS Science.io"
__copyright__ = "Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company"
