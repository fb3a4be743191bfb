"""Forensic analysis of money-transfer ledgers: fraud rings, smurfing, shell layering."""
