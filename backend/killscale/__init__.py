# KillScale backend package
