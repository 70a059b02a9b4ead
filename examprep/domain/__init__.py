"""Domain entities shared by the exam core."""
