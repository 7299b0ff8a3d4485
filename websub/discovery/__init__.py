"""Topic and hub link discovery."""
