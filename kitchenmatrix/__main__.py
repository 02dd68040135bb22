from kitchenmatrix.cli import main

main()
