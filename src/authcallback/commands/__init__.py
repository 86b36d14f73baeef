"""Built-in CLI sub-commands for authcallback."""
