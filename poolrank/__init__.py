"""Numbers-contest ranking, prize split and persistence helpers."""
