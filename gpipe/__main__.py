from gpipe import main

main()
