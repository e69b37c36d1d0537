"""Shared plumbing: config, transport, lights, watchdog and the player client base."""
