"""Framework-free building blocks shared by services: exceptions, patches."""
