from bazel_bsp.server import main

main()
