"""Find which process owns a TCP/UDP port and keep the answer fresh."""
__version__ = '0.3.0'
