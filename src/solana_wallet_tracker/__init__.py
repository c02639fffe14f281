"""Solana Wallet Tracker - Coordinated buy detection across tracked Solana wallets."""

__version__ = "0.1.0"
