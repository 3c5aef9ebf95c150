"""Core engine: storage, registry, auction state machine and host chain"""
