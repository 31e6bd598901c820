"""Command-line entry points: mysql-coverage and mysql-ftrace."""
