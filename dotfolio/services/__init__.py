"""Balance lookup services"""
