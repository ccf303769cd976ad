"""AppTime access API package."""
