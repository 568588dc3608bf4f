"""Royalty-signalling NFT contracts (Beaker / PyTeal)."""
