shannon = 1
ckbytes = 100000000
