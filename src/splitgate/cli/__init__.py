# Copyright (c) Syntropy Systems
"""splitgate command line interface."""
