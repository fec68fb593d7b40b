"""Balance provider adapters"""
