"""Loading and splitting of credit records."""
