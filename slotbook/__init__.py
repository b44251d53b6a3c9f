"""slotbook: appointment booking, rescheduling and reminder dispatch."""
