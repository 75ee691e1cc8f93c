"""Whale Watcher - large blockchain transaction alerts."""
