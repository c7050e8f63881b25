"""
Founder key derivation, addresses and P2WPKH transaction signing.
"""
