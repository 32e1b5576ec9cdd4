"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Corsgate, a product of Garudex Labs

CLI context for Corsgate.

Provides shared context object and decorators for CLI commands.
"""

import click


class CLIContext:
    """Context object for CLI commands."""
    
    def __init__(self):
        self.config = None
        self.config_path = None
        self.verbose = False


pass_context = click.make_pass_decorator(CLIContext, ensure=True)
