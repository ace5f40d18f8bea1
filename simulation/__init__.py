"""
Copyright 2025 AUMOVIO. All rights reserved.
"""
