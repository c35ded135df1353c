"""Page and navigation route analysis for unpacked mini-program projects."""