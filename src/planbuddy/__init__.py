"""Planning Buddy - Eisenhower-matrix task triage with ticket import from email."""
