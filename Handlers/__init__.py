"""
Hardware and network adapters implementing the core protocols.
"""
